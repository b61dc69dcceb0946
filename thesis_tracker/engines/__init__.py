"""
Engines Layer

Domain engines built on the kernel:
- Submissions: versioned storage and history resolution
- Progress: milestone status, deadlines and notifications
- Bulk: multi-entity administrative actions
"""
