"""Pool orchestration, accumulator and commitment scheme."""
