"""transformcache: persistence and replay of transform edits on a live scene graph.

Layout:
    <managed root>/
    ├── transforms_db.json             # Fallback store: scene → unique_id → record
    └── Assets/
        ├── Scenes/                    # Patch files named by scene or level
        │   ├── factory4_day.bundle
        │   └── factory4_day.bundle.backup
        └── StreamingAssets/<level>/   # Mirrored original assets
"""
