"""CSV writer module for the Company Website Resolver."""

import logging
import pandas as pd
from pathlib import Path
from typing import Dict, Any, Sequence

from sitefinder.core.exceptions import CSVProcessingError
from sitefinder.core.models import CompanyRecord


logger = logging.getLogger(__name__)


class CSVWriter:
    """CSV writer for company records with their resolved websites."""

    COLUMNS = ['company.id', 'company.name', 'company.noOfEmployees', 'company.website']
    DETAIL_COLUMNS = ['resolution.method', 'resolution.confidence']

    def __init__(self, output_path: str):
        """Initialize CSV writer.

        Args:
            output_path: Path to the output CSV file
        """
        self.output_path = Path(output_path)
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def _record_to_dict(self, record: CompanyRecord, details: bool) -> Dict[str, Any]:
        """Convert a record to a row dictionary.

        Args:
            record: Company record
            details: Include resolution method and confidence

        Returns:
            Dictionary representation for CSV
        """
        row = {
            'company.id': record.id,
            'company.name': record.name,
            'company.noOfEmployees': record.employees,
            'company.website': record.website,
        }
        if details:
            row['resolution.method'] = record.method or ''
            row['resolution.confidence'] = (
                f"{record.confidence:.2f}" if record.confidence is not None else ''
            )
        return row

    def write_records(self, records: Sequence[CompanyRecord], details: bool = False) -> None:
        """Write all records, replacing any existing output file.

        Args:
            records: Records in input order
            details: Append resolution method and confidence columns

        Raises:
            CSVProcessingError: If the file cannot be written
        """
        columns = self.COLUMNS + (self.DETAIL_COLUMNS if details else [])
        if not records:
            logger.warning("No records to write")

        logger.info(f"Writing {len(records)} records to {self.output_path}")

        rows = [self._record_to_dict(record, details) for record in records]
        df = pd.DataFrame(rows, columns=columns)
        try:
            df.to_csv(self.output_path, mode='w', header=True, index=False)
        except OSError as e:
            logger.error(f"Error writing results to CSV: {e}")
            raise CSVProcessingError(f"Error writing results to CSV: {e}")

        logger.info(f"Successfully wrote {len(rows)} rows to {self.output_path}")
