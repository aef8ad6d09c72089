# WebSocket event type definitions
# Inbound and outbound names match the study-group web client.

CONNECTED = "connected"
ERROR = "error"

# Group calls / WebRTC signaling
JOIN_GROUP_CALL = "joinGroupCall"
LEAVE_GROUP_CALL = "leaveGroupCall"
OFFER = "offer"
ANSWER = "answer"
ICE_CANDIDATE = "iceCandidate"
EXISTING_PARTICIPANTS = "existingParticipants"
USER_JOINED_CALL = "userJoinedCall"
USER_LEFT_CALL = "userLeftCall"

# Study sessions
JOIN_SESSION = "joinSession"
LEAVE_SESSION = "leaveSession"
START_SESSION = "startSession"
END_SESSION = "endSession"
SESSION_PARTICIPANTS = "sessionParticipants"
USER_JOINED_SESSION = "userJoinedSession"
USER_LEFT_SESSION = "userLeftSession"
SESSION_STARTED = "sessionStarted"
SESSION_ENDED = "sessionEnded"

# Group chat
JOIN_GROUP = "joinGroup"
JOINED_GROUP = "joinedGroup"
LEAVE_GROUP = "leaveGroup"
SEND_MESSAGE = "sendMessage"
MESSAGE = "message"
TYPING = "typing"
STOP_TYPING = "stopTyping"
