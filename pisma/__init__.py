"""
Pisma Delivery Service

시간 잠금 편지 전달 스케줄러
- 잠금/열람 상태 머신
- 예약 편지 스윕 (sealed -> delivered)
- 반복(매년/매월) 편지 알림
"""

__version__ = "1.0.0"
__author__ = "Pisma Team"
