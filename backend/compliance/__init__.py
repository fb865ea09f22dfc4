# Compliance Module
# EU 561/2006 Lenk- und Ruhezeiten aus dem Fahrtenbuch

from .models import *
from .engine import analyse, calculate_summary, check_all_violations
from .service import ComplianceService, get_compliance_service
