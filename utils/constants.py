"""Display labels and thresholds for control dimensions."""
from models.enums import ControlDimension

DIMENSION_LABELS = {
    ControlDimension.PLANNING: "Planning",
    ControlDimension.DESIGN_CHANGE: "Design Change",
    ControlDimension.SCHEDULE: "Schedule",
    ControlDimension.MATERIAL: "Material",
    ControlDimension.LOSS_PREVENTION: "Loss Prevention",
    ControlDimension.QUALITY: "Quality",
    ControlDimension.SAFETY: "Safety",
    ControlDimension.REGULATORY: "Regulatory",
    ControlDimension.DOCUMENTATION: "Documentation",
    ControlDimension.SUBCONTRACTOR: "Subcontractor",
    ControlDimension.WORKFORCE: "Workforce",
    ControlDimension.EQUIPMENT: "Equipment",
    ControlDimension.SITE_ORGANIZATION: "Site Organization",
    ControlDimension.OVERALL_MANAGEMENT: "Overall Management",
}

# Score status bands used by both dashboards
STATUS_GOOD = 80.0
STATUS_WARNING = 60.0

SCORE_SOURCE_TABLE = "control_scores"


def dimension_label(dimension):
    if dimension is None:
        return "Site"
    return DIMENSION_LABELS.get(ControlDimension(dimension), str(dimension))


def score_status(score):
    """Map a 0-100 score to good / warning / alert."""
    if score is None:
        return "unknown"
    if score >= STATUS_GOOD:
        return "good"
    if score >= STATUS_WARNING:
        return "warning"
    return "alert"
