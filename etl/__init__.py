# WORKFLOW: ETL package for normalizing trade statistics report tables.
# Used by: Trade stats engine, fallback chain, services package
# Modules include:
# 1. entries.py - Decode raw cells ({value, suppressed} or scalar) and parse numbers
# 2. year_axis.py - Resolve the ordered year columns of a table
# 3. row_parser.py - Parse rows into key / description / unit / year -> value
# 4. table_locator.py - Pick the table for each metric and period mode
# 5. validators.py - Structural payload diagnostics
#
# ETL flow: Report payload -> Locate tables -> Resolve year axis -> Parse rows
# The services package aggregates, merges and ranks what this package extracts.

"""
ETL package for trade statistics table normalization.
"""
