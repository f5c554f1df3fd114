"""
ORM model registry.

Importing a module's ``orm.py`` registers its tables on ``Base.metadata``.
``create_tables()`` calls ``import_all_orm_models()`` so every table exists
before ``create_all`` runs.
"""


def import_all_orm_models() -> None:
    import bench_kernel.models  # noqa: F401
    import bench_kernel.services.sequence_service  # noqa: F401
    import bench_modules.contracts.orm  # noqa: F401
    import bench_modules.engagement_requests.orm  # noqa: F401
    import bench_modules.invoicing.orm  # noqa: F401
    import bench_modules.ratings.orm  # noqa: F401
    import bench_modules.timesheets.orm  # noqa: F401
