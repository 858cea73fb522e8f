from codetime.migrations.mig_base import (
    _migration_001_enable_wal,
    _migration_002_rule_indexes,
    _migration_003_add_astro_language,
    _migration_004_add_raw_pruned,
)

MIGRATIONS = [
    (1, "Enable WAL mode", _migration_001_enable_wal),
    (2, "Rule and origin indexes", _migration_002_rule_indexes),
    (3, "Back-fill Astro language", _migration_003_add_astro_language),
    (4, "Summary raw_pruned flag", _migration_004_add_raw_pruned),
]
