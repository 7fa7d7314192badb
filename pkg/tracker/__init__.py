# Sheet tracker: spreadsheet-backed bug/feature tracking with a kanban workflow
#
# Components:
#   schema.py      - Data model (Task, TaskType, KanbanStatus) and column map
#   dates.py       - Ordered date-format parsing, month bucketing
#   normalizer.py  - Raw sheet row -> Task derivation
#   rowstore.py    - Row store interface + in-memory implementation
#   sheets.py      - Google Sheets row store
#   repository.py  - Task listing, adding, locate-then-write updates
#   aggregators.py - Grouped views and scalar stats over tasks
#   config.py      - YAML + environment configuration
