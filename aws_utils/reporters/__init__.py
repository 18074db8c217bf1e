"""
Report Generators
=================

Output formatters for command results.

Available Reporters
-------------------
CLIReporter
    Rich terminal output: plain lines for scripting, tables for people.
CSVReporter
    CSV rows written incrementally to stdout or a file.

Example
-------
>>> from aws_utils.reporters import CLIReporter, CSVReporter
>>>
>>> cli = CLIReporter()
>>> cli.print_instances(instances)
>>>
>>> csv_reporter = CSVReporter()
>>> csv_reporter.write_rows(instance.to_csv_row() for instance in instances)
"""

from aws_utils.reporters.cli_reporter import CLIReporter
from aws_utils.reporters.csv_reporter import CSVReporter

__all__ = [
    "CLIReporter",
    "CSVReporter",
]
