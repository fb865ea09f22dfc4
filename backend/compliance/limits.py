"""
EU 561/2006 Grenzwerte
Alle Lenk-, Arbeits- und Ruhezeiten als timedelta

Grundlage:
- VO (EG) Nr. 561/2006
- RL 2002/15/EG (Arbeitszeit)
"""

from datetime import timedelta

MINUTE = timedelta(minutes=1)
HOUR = timedelta(hours=1)
DAY = timedelta(days=1)
WEEK = timedelta(weeks=1)

# ============== LENKZEIT ==============

CONTINUOUS_DRIVING_LIMIT = timedelta(hours=4, minutes=30)     # 4h30 ohne Pause
CONTINUOUS_DRIVING_TOLERANCE = 5 * MINUTE                     # Rundungspuffer

DAILY_DRIVING_LIMIT_NORMAL = 9 * HOUR
DAILY_DRIVING_LIMIT_EXTENDED = 10 * HOUR                      # 2x pro Woche
MAX_EXTENDED_DRIVES_PER_WEEK = 2

WEEKLY_DRIVING_LIMIT = 56 * HOUR
BI_WEEKLY_DRIVING_LIMIT = 90 * HOUR

# ============== ARBEITSZEIT (Schicht) ==============

DAILY_WORK_PERIOD_NORMAL = 13 * HOUR
DAILY_WORK_PERIOD_EXTENDED = 15 * HOUR                        # 2x pro Woche
MAX_EXTENDED_WORK_PERIODS_PER_WEEK = 2
MAX_WORK_PERIOD_WITHOUT_DAILY_REST = DAY

# ============== PAUSEN ==============

MINIMUM_BREAK = 45 * MINUTE
MINIMUM_SPLIT_BREAK_1 = 15 * MINUTE                           # erste Teilpause
MINIMUM_SPLIT_BREAK_2 = 30 * MINUTE                           # zweite Teilpause

# ============== TÄGLICHE RUHEZEIT ==============

DAILY_REST_NORMAL = 11 * HOUR
DAILY_REST_REDUCED = 9 * HOUR                                 # 3x zwischen zwei Wochenruhezeiten
MAX_REDUCED_DAILY_RESTS = 3

# ============== WÖCHENTLICHE RUHEZEIT ==============

WEEKLY_REST_NORMAL = 45 * HOUR
WEEKLY_REST_REDUCED = 24 * HOUR                               # mit Ausgleich
MAX_WORK_PERIOD_BEFORE_WEEKLY_REST = 6 * DAY
REST_COMPENSATION_PERIOD = 2 * WEEK                           # nach Ende der Woche
REST_DEBT_EPSILON = MINUTE

# ============== WARNZEITEN ==============

CONTINUOUS_DRIVING_WARNING = 30 * MINUTE
WEEKLY_REST_WARNING = DAY
