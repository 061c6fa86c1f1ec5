# WORKFLOW: ETL package for register uploads and reference data.
# Used by: Import pipeline, bootstrap script
# Modules include:
# 1. spreadsheet.py - Resolve uploads (xlsx, xls, zip) and read spreadsheet rows
# 2. register_mapping.py - Load per-document-type column mappings
# 3. converters.py - Convert ru-RU decimals, integers, dates and countries
# 4. excel_colors.py - Detect partner-marked rows by fill colour
# 5. register_import.py - Stage register rows into parcels
# 6. reference_data.py - Validate and load FEACN and vocabulary seeds
# 7. key_word_list.py - Merge key-word list spreadsheets into the vocabulary
# 8. feacn_catalog.py - Replace the FEACN code catalog from a spreadsheet export
#
# ETL flow: Upload -> Spreadsheet rows -> Mapping -> Conversion -> Register + Parcels

"""
ETL package for Parcel Compliance API data ingestion.
"""
