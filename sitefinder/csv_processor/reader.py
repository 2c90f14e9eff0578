"""CSV reader module for the Company Website Resolver."""

import logging
import pandas as pd
from pathlib import Path
from typing import Iterator, Optional, Callable

from sitefinder.core.exceptions import CSVProcessingError
from sitefinder.core.models import CompanyRecord, NOT_AVAILABLE


logger = logging.getLogger(__name__)


class CSVValidationError(CSVProcessingError):
    """Raised when CSV validation fails."""
    pass


class CSVReader:
    """CSV reader for company records.

    Columns are matched by header name. When no name column is recognised the
    first three columns are taken as name, employees and id.
    """

    POSITIONAL_COLUMNS = ['name', 'employees', 'id']

    def __init__(self, file_path: str):
        """Initialize CSV reader.

        Args:
            file_path: Path to the CSV file

        Raises:
            FileNotFoundError: If the file doesn't exist
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise FileNotFoundError(f"CSV file not found: {file_path}")

        self._column_mapping = {
            'name': ['company.name', 'name', 'companyname', 'company_name', 'company'],
            'employees': ['company.noofemployees', 'employees', 'noofemployees',
                          'employee_count', 'employeecount'],
            'id': ['company.id', 'id', 'companyid', 'company_id'],
            'website': ['company.website', 'website', 'url'],
        }

    def _normalize_columns(self, df: pd.DataFrame) -> pd.DataFrame:
        """Map recognised header variations onto canonical column names.

        Args:
            df: DataFrame with original column names

        Returns:
            DataFrame with normalized column names
        """
        column_mapping = {}
        taken = set()
        for col in df.columns:
            col_lower = str(col).lower().strip()
            for normalized_name, variations in self._column_mapping.items():
                if normalized_name not in taken and col_lower in variations:
                    column_mapping[col] = normalized_name
                    taken.add(normalized_name)
                    break

        if 'name' not in taken:
            logger.info("No name header recognised, using columns by position")
            column_mapping = {
                col: self.POSITIONAL_COLUMNS[index]
                for index, col in enumerate(df.columns[:len(self.POSITIONAL_COLUMNS)])
            }

        return df.rename(columns=column_mapping)

    def _row_to_record(self, row: pd.Series, row_index: int) -> Optional[CompanyRecord]:
        """Build a record from a row, or None if the row has no company name."""
        def value(column: str) -> str:
            raw = row.get(column, '')
            return str(raw).strip() if pd.notna(raw) else ''

        name = value('name')
        if not name:
            logger.warning(f"Row {row_index + 2}: Missing company name, skipping")
            return None

        record = CompanyRecord(
            id=value('id') or str(row_index + 1),
            name=name,
            employees=value('employees'),
        )

        website = value('website')
        if website:
            record.website = website
            record.status = 'not_available' if website == NOT_AVAILABLE else 'found'

        return record

    def read_records(self, progress_callback: Optional[Callable[[int, int], None]] = None
                     ) -> Iterator[CompanyRecord]:
        """Read company records from the CSV file.

        Args:
            progress_callback: Optional callback function(current, total) for progress updates

        Yields:
            CompanyRecord objects; rows that already carry a website keep it

        Raises:
            CSVValidationError: If the file cannot be parsed
        """
        logger.info(f"Reading companies from CSV: {self.file_path}")

        try:
            # Read all as strings; ids and employee counts are opaque
            df = pd.read_csv(self.file_path, dtype=str, keep_default_na=False)
        except pd.errors.EmptyDataError:
            logger.warning("CSV file is empty or contains no data")
            return
        except (pd.errors.ParserError, UnicodeDecodeError) as e:
            logger.error(f"Error reading CSV file: {e}")
            raise CSVValidationError(f"Error reading CSV file: {e}")

        if df.empty:
            logger.warning("CSV file is empty")
            return

        df = self._normalize_columns(df)
        total_rows = len(df)
        logger.info(f"Found {total_rows} companies in CSV")

        valid_count = 0
        for position, (_, row) in enumerate(df.iterrows(), 1):
            if progress_callback:
                progress_callback(position, total_rows)

            record = self._row_to_record(row, position - 1)
            if record is None:
                continue
            valid_count += 1
            yield record

        logger.info(f"Successfully read {valid_count} out of {total_rows} companies")
