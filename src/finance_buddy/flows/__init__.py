from .base import BaseFlow, FlowError, FlowStatus, StepType, and_, listen, or_, router, start
from .financial_analysis import FinancialAnalysisFlow, run_financial_analysis

__all__ = ['BaseFlow', 'FlowError', 'FlowStatus', 'StepType', 'and_', 'or_', 'listen', 'router',
           'start', 'FinancialAnalysisFlow', 'run_financial_analysis']
