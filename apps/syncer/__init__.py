"""
Syncer App - Account Archive Synchronization

Responsibilities:
- Scheduled execution (daily cron via APScheduler) or on demand via the API
- Paginated fetch of all accounts from the CRM Web API
- Mark accounts whose due date has passed as processed (bounded retry per record)
- Export the full as-fetched record set to CSV
- Upload the CSV to the archive (blob storage or a local directory)

Output:
- <prefix>/<yyyy>/<MM>/<dd>/<label>_<HHmmss>.csv in the configured archive
- RunSummary with fetched/eligible/updated/failed counts
"""
