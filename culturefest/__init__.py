"""
Interschool Cultural Competition service.

Responsibilities:
- School self-registration (create/edit by registration id)
- Judge scoring and written feedback
- Organizer dashboard (schools/judges/categories CRUD)
- Leaderboard aggregation per tier
- Performance-order lottery
- PDF/Excel exports
"""
