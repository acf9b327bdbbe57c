"""Server-rendered portal pages.

- login / register forms posting back to the portal
- 401 and 404 pages
- no client-side scripting; the session lives in an HttpOnly cookie
"""
