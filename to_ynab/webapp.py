import logging

import streamlit as st

from to_ynab import config
from to_ynab.errors import ToYnabError
from to_ynab.models import ConversionOptions
from to_ynab.pipeline import convert
from to_ynab.preview import records_to_df
from to_ynab.sources import load_registry

AUTO_DETECT = "Detect from header"

# Configure Streamlit page
st.set_page_config(
    page_title="Bank CSV to YNAB",
    page_icon="🏦",
    layout="wide",
)


@st.cache_resource
def get_registry():
    return load_registry(include_custom=True)


def main():
    st.title("Bank CSV to YNAB")
    registry = get_registry()

    data_source = st.selectbox(
        "Data Source",
        options=[AUTO_DETECT, *registry.keys()],
        help="Select the bank the csv was exported from",
    )
    date_format = st.selectbox("Output date format", options=config.ALLOWED_DATE_FORMATS)
    last_date = st.text_input("Last date (optional)", help=f"In the output date format, e.g. {date_format}")
    payees = st.text_input(
        "Payees", help="Comma separated payees to look for in the memo of sources without a payee column"
    )

    uploaded_file = st.file_uploader("Choose bank csv file", type=["csv"])

    if uploaded_file is not None:
        options = ConversionOptions(
            source=None if data_source == AUTO_DETECT else data_source,
            date_format=date_format,
            last_date=last_date or None,
            payees=tuple(p for p in payees.split(",") if p),
            csv_string=True,
            write=False,
        )
        try:
            file_contents = uploaded_file.getvalue().decode("utf-8-sig")
            result = convert(file_contents, options, registry)
        except (ToYnabError, UnicodeDecodeError) as e:
            st.error(f"Error converting file: {str(e)}")
            logging.exception(e)
            return

        st.success(f"Converted {len(result.records)} transactions from {result.source_name}! 🎉")
        if result.skipped_rows:
            st.info(f"{result.skipped_rows} transactions after {last_date} were left out")
        st.subheader("Converted Transactions")
        st.dataframe(records_to_df(result.records), use_container_width=True)
        st.download_button(
            "Download YNAB csv",
            data=result.data,
            file_name=f"{config.DEFAULT_OUTPUT}_{uploaded_file.name}",
            mime="text/csv",
        )


if __name__ == "__main__":
    main()
