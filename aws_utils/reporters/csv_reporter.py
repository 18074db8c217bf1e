"""
CSV Reporter Module
===================

Writes per-account results as CSV rows, to stdout by default.

Rows arrive one account at a time as the role iteration harness
progresses, so the reporter keeps its output stream open across
accounts and writes the column header at most once.

Classes
-------
CSVReporter
    Incremental CSV writer.

Example
-------
>>> from aws_utils.reporters import CSVReporter
>>> from aws_utils.scanners.subnets import CSV_HEADER
>>>
>>> reporter = CSVReporter(header=CSV_HEADER)
>>> reporter.write_rows(subnet.to_csv_row() for subnet in subnets)

Output Format
-------------
``subnets``::

    Account,VPC,Subnet Name,Subnet ID,Cidr
    111122223333,vpc-0a1b,private-a,subnet-0c2d,10.0.1.0/24

``csv-instances`` has no header::

    111122223333,i-0abc,web-1,ami-0def,42

See Also
--------
CLIReporter : For terminal display.
"""

from __future__ import annotations

import csv
import logging
import sys
from typing import Any, Iterable, List, Optional, TextIO

# Module logger
logger = logging.getLogger(__name__)


class CSVReporter:
    """
    Reporter writing CSV rows to a stream or file.

    Parameters
    ----------
    output_path : str, optional
        File to write to. When omitted rows go to ``stream``.
    stream : file-like, optional
        Destination when no path is given. Defaults to ``sys.stdout``.
    header : list of str, optional
        Column names written before the first row.

    Attributes
    ----------
    rows_written : int
        Number of data rows written so far.

    Examples
    --------
    >>> with CSVReporter(output_path="instances.csv") as reporter:
    ...     reporter.write_rows(rows)
    """

    def __init__(
        self,
        output_path: Optional[str] = None,
        stream: Optional[TextIO] = None,
        header: Optional[List[str]] = None,
    ) -> None:
        self.output_path = output_path
        self.header = header
        self.rows_written = 0
        self._header_written = False
        self._file: Optional[TextIO] = None

        if output_path:
            self._file = open(output_path, "w", newline="", encoding="utf-8")
            target = self._file
        else:
            target = stream or sys.stdout

        self._writer = csv.writer(target, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
        logger.debug(f"Initialized CSVReporter (output_path={output_path})")

    def write_row(self, row: List[Any]) -> None:
        """Write one row, preceded by the header if it has not been written."""
        if self.header and not self._header_written:
            self._writer.writerow(self.header)
            self._header_written = True
        self._writer.writerow(row)
        self.rows_written += 1

    def write_rows(self, rows: Iterable[List[Any]]) -> int:
        """
        Write several rows.

        Returns
        -------
        int
            How many rows were written by this call.
        """
        count = 0
        for row in rows:
            self.write_row(row)
            count += 1
        return count

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            logger.info(f"CSV export complete: {self.output_path}")
            self._file = None

    def __enter__(self) -> CSVReporter:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        """Return string representation."""
        return f"CSVReporter(output_path={self.output_path!r})"
