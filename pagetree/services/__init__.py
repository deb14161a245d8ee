# Services package init
"""
PageTree CMS — Services Layer
=============================

What:  Business logic between routes (HTTP) and the store client.
How:   Services receive the store client as an argument, apply the page and
       table rules, and return models or view objects for the templates.

Service Inventory:
    - BreadcrumbService: ancestor walk with cycle and depth guards
    - PageService:       name lookup, render, create, content update, delete
    - TableService:      table metadata listing and record retrieval
"""
