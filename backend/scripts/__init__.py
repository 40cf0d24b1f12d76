"""
scripts

Package utilitaire pour les scripts de maintenance / données.

Rôle (fonctionnel) :
- seed_demo   : génère des fiches et corrélations de démonstration pour un tenant.
- rescore_all : recalcule les scores stockés depuis les facteurs (unité brute 1..60).

Note :
- Les scripts ne contiennent pas de logique métier “centrale” :
  ils orchestrent et appellent les modules de `gamr/` (engine, models, db).
"""
