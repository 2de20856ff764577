# dbdump/defaults.py
"""Default settings - no imports to avoid circular dependencies."""

settings = {
    'default_db_type': 'oracle',
    'fetch_array_size': 1000,       # rows fetched per round trip while streaming a table
    'output_dir': 'export_sql',
    'quote_identifiers': False,
    'one_file_per_table': True,
    'commit_every': 500,            # 0 disables intermediate "-- COMMIT;" markers
    'file_timestamp_format': '%Y%m%d_%H%M%S',
    'header_timestamp_format': '%Y-%m-%d %H:%M:%S',
    'env_prefix': 'DBDUMP_',
    'logging': {
        'directory': None,          # None = log next to the exported files
        'level': 'INFO',
        'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        'timestamp_format': '%Y-%m-%d %H:%M:%S',
        'filename_format': '%Y%m%d_%H%M%S',  # Set to '' for single log file (no timestamp)
        'split_errors': False,
        'console': True,
    }
}
