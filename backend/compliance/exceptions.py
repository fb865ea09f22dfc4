"""
Fehlerklassen der Compliance-Engine

Datenfehler aus der Fahrereingabe (z.B. überlappende Aktivitäten) sind KEINE
Exceptions, sondern werden als Verstoß gemeldet. Diese Klassen markieren
Programmierfehler.
"""


class ComplianceError(Exception):
    """Basisklasse für alle Engine-Fehler"""


class OpenActivityError(ComplianceError):
    """Eine laufende Aktivität (end=None) hat die Normalisierung umgangen"""

    def __init__(self, activity_id: str):
        super().__init__(f"Activity '{activity_id}' is still open (end=None)")
        self.activity_id = activity_id
