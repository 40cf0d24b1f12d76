"""
gamr.db

Accès base de données :
- base    : classe Declarative commune + conventions de nommage des contraintes (Alembic)
- session : engine async, factory de sessions et dépendance FastAPI get_db()
"""
