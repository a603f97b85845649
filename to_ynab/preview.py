from typing import Sequence

import pandas as pd

from to_ynab.models import CanonicalField, CanonicalRecord


def records_to_df(records: Sequence[CanonicalRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {f.heading: getattr(r, f.value) for f in CanonicalField}
            for r in records
        ],
        columns=[f.heading for f in CanonicalField],
    )
