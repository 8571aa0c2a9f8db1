"""
Application database: schema, migrations context, and seeding.

- Alembic scripts under `db/migrations/alembic`
- `AppDbContext`, the context the startup migration runs against
- Idempotent default-tenant seeder
"""
