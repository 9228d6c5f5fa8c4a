# cardscan: Trello board sync and contact extraction
#
# Components:
#   schema.py       - Data model (BoardList, Card, Comment, Contact, SyncReport)
#   store.py        - SQLite persistence layer and schema migrations
#   board_client.py - Trello REST client
#   extractor.py    - LLM contact extraction per text unit
#   validator.py    - Field rules and phone normalization
#   dedup.py        - Duplicate check before commit
#   sync.py         - Full/incremental sync orchestration
#   marker.py       - Last synchronized board id
#   config.py, log.py, cli.py - Runtime wiring

__version__ = "0.1.0"
