# Workbook Submissions - Build Version
# This file forces cache invalidation for deployment

BUILD_VERSION = "1.0.0"
BUILD_DATE = "2026-10-18"
BUILD_ID = "page-reconciliation"

# Changes in this build:
# - Sequential-with-fallback page matching for batch submissions
# - Single-page submission path (pending review)
# - Similarity re-check that respects manual review locks
# - Versioned ledger writes (409 on concurrent update)
