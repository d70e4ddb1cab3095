# pisma/schemas/__init__.py
"""
스키마 패키지
순환 import 방지를 위해 필요한 것만 노출
"""

# 기본적으로 자주 사용되는 스키마들만 노출
from .commons_schemas import BaseResponse, ErrorDetail
from .letter_schemas import LetterRecord, LetterStatus, RecurringType, DeliveryPlan

# 각 모듈별로 필요할 때 직접 import하도록 함
# from .sweep_schemas import SweepDecision, SweepResult, SweepResponse
