"""
PageTree CMS — Middleware Package
=================================

Middleware Chain (order matters):
    Request → [Request ID] → [Logging] → [Data Fetch] → Route Handler

    1. Request ID: correlation id for every later log line
    2. Logging:    access line with status and duration
    3. Data Fetch: site settings, pages and tables for the admin views
                   (/settings, /pages, /tables only)
"""
