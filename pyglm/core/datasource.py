"""
Universal DataSource for pyglm.

DataSource is the "I have case data" abstraction. It holds one column per
variable, one entry per case, and does not know which columns a model will
treat as factors, covariates or weights. The design builder decides that.

Columns are stored as given: factor columns may hold strings or numbers,
and missing values (None, NaN, empty string) are kept so the design builder
can perform listwise deletion over exactly the variables a model uses.

Usage:
    from pyglm import DataSource

    ds = DataSource.from_arrays(y=y, group=group)
    ds = DataSource.from_records([{'y': 10.1, 'group': 1}, ...])
    ds = DataSource.from_mapping({'y': [...], 'group': [...]})
    ds = DataSource.from_dataframe(df)
    ds = DataSource.from_file("cases.csv")

    ds.keys()  # frozenset({'y', 'group'})
    y = ds['y']
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, TYPE_CHECKING

import numpy as np
import pandas as pd

from pyglm.core.exceptions import ValidationError
from pyglm.core.validation import check_consistent_length

if TYPE_CHECKING:
    from numpy.typing import NDArray


def is_missing(value: Any) -> bool:
    """True for None, NaN (float or pandas NA) and empty/blank strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def missing_mask(column: NDArray) -> NDArray[np.bool_]:
    """Boolean mask of missing entries in a column."""
    column = np.asarray(column)
    if np.issubdtype(column.dtype, np.floating):
        return np.isnan(column)
    if np.issubdtype(column.dtype, np.number) or column.dtype == bool:
        return np.zeros(column.shape[0], dtype=bool)
    return np.fromiter((is_missing(v) for v in column), dtype=bool, count=column.shape[0])


def _as_column(name: str, values: Any) -> NDArray:
    arr = np.asarray(values)
    if arr.ndim == 0:
        raise ValidationError(f"{name}: expected a sequence of case values, got a scalar")
    if arr.ndim == 2 and arr.shape[1] == 1:
        arr = arr.ravel()
    if arr.ndim != 1:
        raise ValidationError(f"{name}: expected 1D column, got shape {arr.shape}")
    return arr


@dataclass
class DataSource:
    """
    Case data container. Domain-agnostic.

    Construct via factory classmethods, not directly.
    """
    _data: dict[str, Any]
    _metadata: dict[str, Any] = field(default_factory=dict)

    # === Column Access ===

    def keys(self) -> frozenset[str]:
        """
        Return the names of all available columns.

        Example:
            >>> ds = DataSource.from_arrays(y=y, group=group)
            >>> ds.keys()
            frozenset({'y', 'group'})
        """
        return frozenset(self._data.keys())

    def __getitem__(self, key: str) -> Any:
        """
        Access a named column.

        Raises:
            KeyError: If key not found, with a message listing available columns
        """
        if key not in self._data:
            available = sorted(self.keys())
            raise KeyError(
                f"DataSource has no column '{key}'. Available: {available}"
            )
        return self._data[key]

    def __contains__(self, key: str) -> bool:
        return key in self._data

    # === Properties ===

    @property
    def n_observations(self) -> int:
        """Number of cases (rows)."""
        return self._metadata.get('n_observations', 0)

    @property
    def metadata(self) -> dict[str, Any]:
        """Domain-agnostic metadata."""
        return self._metadata.copy()

    # === Factory Methods ===

    @classmethod
    def from_arrays(cls, **named_arrays: Any) -> DataSource:
        """Construct from named 1D arrays or sequences of equal length."""
        return cls._from_columns(named_arrays, source='arrays')

    @classmethod
    def from_mapping(cls, columns: Mapping[str, Any]) -> DataSource:
        """Construct from a mapping of column name to sequence of values."""
        return cls._from_columns(dict(columns), source='mapping')

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> DataSource:
        """
        Construct from per-case records (one mapping per case).

        A variable absent from a record is treated as missing for that case.
        """
        records = list(records)
        names: list[str] = []
        for rec in records:
            if not isinstance(rec, Mapping):
                raise ValidationError(
                    f"records: expected mappings, got {type(rec).__name__}"
                )
            for key in rec:
                if key not in names:
                    names.append(key)

        columns: dict[str, Any] = {}
        for name in names:
            values = [rec.get(name) for rec in records]
            columns[name] = np.array(values, dtype=object)
        ds = cls._from_columns(columns, source='records')
        ds._metadata['n_observations'] = len(records)
        return ds

    @classmethod
    def from_dataframe(cls, df: pd.DataFrame, *, source_path: str | None = None) -> DataSource:
        """Construct from a pandas DataFrame. Numeric columns become float64."""
        storage: dict[str, Any] = {}
        for col in df.columns:
            series = df[col]
            if pd.api.types.is_numeric_dtype(series) and not pd.api.types.is_bool_dtype(series):
                storage[str(col)] = series.to_numpy(dtype=np.float64, na_value=np.nan)
            else:
                storage[str(col)] = series.to_numpy(dtype=object)

        metadata = {
            'n_observations': len(df),
            'source': 'dataframe',
            'columns': [str(c) for c in df.columns],
        }
        if source_path:
            metadata['source_path'] = source_path
        return cls(_data=storage, _metadata=metadata)

    @classmethod
    def from_file(cls, path: str | Path, *, columns: list[str] | None = None) -> DataSource:
        """Construct from a delimited text file (CSV or TSV)."""
        path = Path(path)
        suffix = path.suffix.lower()

        if suffix == '.csv':
            df = pd.read_csv(path, usecols=columns)
        elif suffix == '.tsv':
            df = pd.read_csv(path, sep='\t', usecols=columns)
        else:
            raise ValidationError(f"Unknown file format: {suffix}")
        return cls.from_dataframe(df, source_path=str(path))

    @classmethod
    def build(cls, data: Any) -> DataSource:
        """
        Convenience factory that dispatches on the input type.

        Examples:
            DataSource.build(ds)                  # returned unchanged
            DataSource.build(df)                  # from_dataframe
            DataSource.build({'y': [...]})        # from_mapping
            DataSource.build([{'y': 1.0}, ...])   # from_records
            DataSource.build("cases.csv")         # from_file
        """
        if isinstance(data, DataSource):
            return data
        if isinstance(data, pd.DataFrame):
            return cls.from_dataframe(data)
        if isinstance(data, (str, Path)):
            return cls.from_file(data)
        if isinstance(data, Mapping):
            return cls.from_mapping(data)
        if isinstance(data, Iterable):
            return cls.from_records(data)
        raise ValidationError(
            f"data: unsupported case data type {type(data).__name__}"
        )

    @classmethod
    def _from_columns(cls, columns: dict[str, Any], *, source: str) -> DataSource:
        storage = {str(name): _as_column(name, values) for name, values in columns.items()}
        check_consistent_length(*storage.values(), names=tuple(storage))
        n_obs = next(iter(storage.values())).shape[0] if storage else 0
        return cls(
            _data=storage,
            _metadata={'n_observations': n_obs, 'source': source},
        )
