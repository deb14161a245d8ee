"""
PageTree CMS — Routes Package
=============================

Route Inventory:
    - site.py:    GET  /                      (landing page)
                  GET  /settings              (settings view)
    - pages.py:   POST /create/page
                  GET  /pages/{page_name}
                  GET  /pages/delete/{id}
                  POST /pages/update/{id}
    - tables.py:  GET  /tables
                  GET  /tables/{table_name}
    - health.py:  GET  /health

Routes stay thin: pull data out of the request, call a service with the
injected store client, render or redirect.
"""
