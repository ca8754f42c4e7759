from conversation.gateway import ApiGateway
from conversation.messages import (
    AudioMessage,
    TextMessage,
    build_transcript,
    filter_messages,
    message_from_record,
)
from conversation.recorder import AudioRecorder, RecorderError
from conversation.session import ConversationSession, SessionError
from conversation.subscription import LiveSubscription
