# Routes package init
"""
Bird League Backend — API Routes Package
=========================================

Route Inventory:
    - health.py:       GET  /, /health
    - league.py:       GET  /api/members, /api/schedule, /api/standings,
                            /api/data, /api/week/{week}
    - submissions.py:  POST /api/submit/{week}/{member_id}
                       GET  /api/media/{week}/{member_id}/{filename}
    - admin.py:        GET  /api/admin/backup, /api/admin/backups
                       POST /api/admin/restore, /api/admin/restore/{name},
                            /api/admin/week/{week}/status, /api/admin/reset

Routes stay thin: extract from the request, call a service or the store,
shape the response. Errors propagate as BirdLeagueError subclasses and are
mapped to HTTP status codes in main.py.
"""
