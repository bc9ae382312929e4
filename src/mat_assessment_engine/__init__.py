"""MAT maturity assessment engine.

Scoring, stage gating, assessment version lifecycle and organisation-wide
roll-up for the maturity assessment module (Pillar -> Stage -> Theme ->
Question questionnaires answered per department).
"""

__version__ = "0.1.0"
