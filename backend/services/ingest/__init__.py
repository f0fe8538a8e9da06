# services/ingest/__init__.py

from services.ingest.batch_loader import BatchLoader, DuplicatePolicy, LoadResult
from services.ingest.importer import ImportJobError, ImportResult, import_orders_file
from services.ingest.record_assembler import SpreadsheetReadError
