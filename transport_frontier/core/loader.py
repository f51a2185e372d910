"""
Data Loader Module
==================

This module reads problem inputs from Excel (.xlsx/.xls) and CSV files:

- Cost tables: first column holds the origin names, the header row the
  destination names. Blank cells mean "no arc" and load as ``inf`` so the
  transport models exclude them.
- Vectors (supply, capacity): first column names, second column values.
- Raw return histories: one column per asset, an optional date column, one
  row per period. Statistics are computed with population covariance.
- Pre-computed statistics: one row per asset, a ``mean`` column followed by
  the covariance columns in the same asset order.
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from transport_frontier.core.frontier import compute_stats_from_returns


class DataLoader:
    """
    Loads cost tables, vectors and portfolio statistics from spreadsheets.

    Example:
        >>> loader = DataLoader()
        >>> costs = loader.load_cost_table("waste.xlsx", sheet="Costs")
        >>> means, cov, names = loader.load_returns("returns.csv")
    """

    EXCEL_SUFFIXES = ('.xlsx', '.xls')

    def _read_table(
        self,
        file_path: str,
        sheet: Optional[str] = None,
        index_col: Optional[int] = None
    ) -> pd.DataFrame:
        path = Path(file_path)

        if not path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        if path.suffix.lower() in self.EXCEL_SUFFIXES:
            return pd.read_excel(path, sheet_name=sheet if sheet is not None else 0, index_col=index_col)
        if path.suffix.lower() == '.csv':
            return pd.read_csv(path, index_col=index_col)

        raise ValueError(f"Unsupported file type: {path.suffix}")

    def load_cost_table(self, file_path: str, sheet: Optional[str] = None) -> pd.DataFrame:
        """
        Load a labeled cost table.

        Args:
            file_path: Path to Excel or CSV file
            sheet: Sheet name for Excel files (default: first sheet)

        Returns:
            DataFrame of float costs; blank cells become ``inf``
        """
        df = self._read_table(file_path, sheet, index_col=0)
        df.index = [str(name).strip() for name in df.index]
        df.columns = [str(name).strip() for name in df.columns]

        costs = df.apply(pd.to_numeric, errors='coerce').astype(float)
        return costs.fillna(np.inf)

    def load_vector(self, file_path: str, sheet: Optional[str] = None) -> pd.Series:
        """
        Load a named vector such as plant supply or site capacity.

        Returns:
            Series indexed by name, values from the first data column
        """
        df = self._read_table(file_path, sheet, index_col=0)
        series = pd.to_numeric(df.iloc[:, 0], errors='coerce')
        series.index = [str(name).strip() for name in series.index]

        if series.isna().any():
            missing = list(series.index[series.isna()])
            raise ValueError(f"Non-numeric values for: {missing}")

        return series.astype(float)

    def load_returns(
        self,
        file_path: str,
        sheet: Optional[str] = None,
        exclude_columns: Optional[List[str]] = None
    ) -> Tuple[np.ndarray, np.ndarray, List[str]]:
        """
        Load a return history and compute expected returns and covariance.

        Date columns and columns that are not numeric are dropped, as are rows
        with missing values.

        Args:
            file_path: Path to Excel or CSV file
            sheet: Sheet name for Excel files
            exclude_columns: Columns to leave out (e.g., ['SPY'] to exclude market)

        Returns:
            Tuple of (expected_returns, cov_matrix, asset_names)
        """
        df = self._read_table(file_path, sheet)

        keep = []
        for col in df.columns:
            if exclude_columns and col in exclude_columns:
                continue
            if 'date' in str(col).lower() or pd.api.types.is_datetime64_any_dtype(df[col]):
                continue
            if pd.to_numeric(df[col], errors='coerce').notna().any():
                keep.append(col)

        if not keep:
            raise ValueError(f"No numeric return columns found in {file_path}")

        returns = df[keep].apply(pd.to_numeric, errors='coerce').dropna()
        return compute_stats_from_returns(returns.to_numpy(dtype=float), [str(c) for c in keep])

    def load_statistics(
        self,
        file_path: str,
        sheet: Optional[str] = None
    ) -> Tuple[np.ndarray, np.ndarray, List[str]]:
        """
        Load pre-computed expected returns and covariance.

        Layout: asset names in the first column, a 'mean' column, then one
        covariance column per asset.

        Returns:
            Tuple of (expected_returns, cov_matrix, asset_names)
        """
        df = self._read_table(file_path, sheet, index_col=0)
        asset_names = [str(name).strip() for name in df.index]

        mean_cols = [col for col in df.columns if str(col).strip().lower() == 'mean']
        if not mean_cols:
            raise ValueError(f"No 'mean' column in {file_path}")

        expected_returns = pd.to_numeric(df[mean_cols[0]], errors='coerce').to_numpy(dtype=float)
        cov_matrix = df.drop(columns=mean_cols).apply(pd.to_numeric, errors='coerce').to_numpy(dtype=float)

        return expected_returns, cov_matrix, asset_names

    def validate_data(
        self,
        expected_returns: np.ndarray,
        cov_matrix: np.ndarray,
        asset_names: List[str]
    ) -> Dict[str, Any]:
        """
        Validate loaded portfolio data and return diagnostics.

        Checks:
        - Dimensions match
        - No NaN or Inf values
        - Covariance matrix is symmetric
        - Covariance matrix is positive semi-definite

        Returns:
            Dictionary with 'is_valid', 'errors', 'warnings' and summary stats
        """
        expected_returns = np.asarray(expected_returns, dtype=float)
        cov_matrix = np.asarray(cov_matrix, dtype=float)

        results = {
            'is_valid': True,
            'warnings': [],
            'errors': [],
            'n_assets': len(expected_returns),
            'asset_names': list(asset_names)
        }

        if cov_matrix.shape != (len(expected_returns), len(expected_returns)):
            results['errors'].append(
                f"Dimension mismatch: {len(expected_returns)} returns but "
                f"{cov_matrix.shape} covariance matrix"
            )
            results['is_valid'] = False
            return results

        if len(asset_names) != len(expected_returns):
            results['errors'].append(
                f"{len(asset_names)} asset names for {len(expected_returns)} assets"
            )
            results['is_valid'] = False

        if not np.all(np.isfinite(expected_returns)):
            results['errors'].append("Expected returns contain NaN or Inf")
            results['is_valid'] = False

        if not np.all(np.isfinite(cov_matrix)):
            results['errors'].append("Covariance matrix contains NaN or Inf")
            results['is_valid'] = False
            return results

        if not np.allclose(cov_matrix, cov_matrix.T):
            results['errors'].append("Covariance matrix is not symmetric")
            results['is_valid'] = False

        eigenvalues = np.linalg.eigvalsh((cov_matrix + cov_matrix.T) / 2)
        if np.any(eigenvalues < -1e-10):
            results['errors'].append(
                f"Covariance matrix has negative eigenvalues: min = {eigenvalues.min():.6e}"
            )
            results['is_valid'] = False
        elif np.any(eigenvalues < 1e-12):
            results['warnings'].append("Covariance matrix is singular; optimal weights may not be unique")

        results['return_stats'] = {
            'min': float(expected_returns.min()),
            'max': float(expected_returns.max()),
            'mean': float(expected_returns.mean())
        }

        return results
