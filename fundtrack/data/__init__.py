"""Dataset schemas, cell normalisation, spreadsheet loading and persistence."""
from .schemas import Dataset, Row, Submission, ApprovedRecord, ProposalMeta, ValidationFailure
from .store import DataStore, StorageError
from .loader import load_dataset_file
from .normalize import looks_like_url, looks_like_filename, parse_amount, to_ymd
