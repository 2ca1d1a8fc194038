"""Alert dispatching, threshold rules, lifecycle and channels."""
from alerts.engine import AlertDispatcher, evaluate, OPERATOR_MAP
from alerts.lifecycle import AlertError, InvalidTransition, acknowledge, resolve, dismiss
from alerts.rules_manager import RulesManager
from alerts.channels import ConsoleChannel, FileChannel, build_channels
