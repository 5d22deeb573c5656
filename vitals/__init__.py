"""
Vitals monitoring agents: sensor frame decoding and cardiovascular risk scoring
"""

from .frame_decoder import FrameDecodeError, determine_device_type, process_raw_data
from .device_agent import DeviceAgent, DeviceNotConnectedError
from .analyzer_agent import AnalyzerAgent
from .detection_agent import DetectionAgent
from .readings_agent import ReadingsAgent
from .profile_agent import ProfileAgent
from .alert_agent import AlertAgent

__all__ = [
    'FrameDecodeError', 'determine_device_type', 'process_raw_data',
    'DeviceAgent', 'DeviceNotConnectedError',
    'AnalyzerAgent', 'DetectionAgent',
    'ReadingsAgent', 'ProfileAgent', 'AlertAgent',
]
