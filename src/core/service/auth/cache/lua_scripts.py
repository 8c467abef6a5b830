"""Redis Lua scripts for atomic admin session transitions and lockout counters."""

# Make a new session the admin's only active one
# Keys: [active_pointer_key, new_session_key]
# Args: [session_id, session_json, ttl_seconds, session_key_prefix, revoked_at]
# Returns: previous session id or nil
ADMIN_LOGIN_SCRIPT = """
local pointer_key = KEYS[1]
local session_key = KEYS[2]
local session_id = ARGV[1]
local ttl = tonumber(ARGV[3])
local prefix = ARGV[4]

local previous = redis.call('GET', pointer_key)

redis.call('SET', session_key, ARGV[2], 'EX', ttl)
redis.call('SET', pointer_key, session_id, 'EX', ttl)

if previous and previous ~= session_id then
    local raw = redis.call('GET', prefix .. previous)
    if raw then
        local record = cjson.decode(raw)
        record['revoked'] = true
        record['revoked_at'] = ARGV[5]
        redis.call('SET', prefix .. previous, cjson.encode(record), 'KEEPTTL')
    end
end

return previous
"""

# Revoke a session and clear the admin's pointer if it still points at it
# Keys: [session_key, active_pointer_key]
# Args: [session_id, revoked_at]
# Returns: 1 if the session transitioned to revoked, 0 otherwise
ADMIN_LOGOUT_SCRIPT = """
local session_key = KEYS[1]
local pointer_key = KEYS[2]

if redis.call('GET', pointer_key) == ARGV[1] then
    redis.call('DEL', pointer_key)
end

local raw = redis.call('GET', session_key)
if not raw then
    return 0
end

local record = cjson.decode(raw)
if record['revoked'] == true then
    return 0
end

record['revoked'] = true
record['revoked_at'] = ARGV[2]
redis.call('SET', session_key, cjson.encode(record), 'KEEPTTL')
return 1
"""

# Record activity on a session that is still the admin's active one
# Keys: [session_key, active_pointer_key]
# Args: [session_id, last_activity_at]
# Returns: 1 if touched, 0 otherwise
ADMIN_TOUCH_SCRIPT = """
local session_key = KEYS[1]
local pointer_key = KEYS[2]

if redis.call('GET', pointer_key) ~= ARGV[1] then
    return 0
end

local raw = redis.call('GET', session_key)
if not raw then
    return 0
end

local record = cjson.decode(raw)
if record['revoked'] == true then
    return 0
end

record['last_activity_at'] = ARGV[2]
redis.call('SET', session_key, cjson.encode(record), 'KEEPTTL')
return 1
"""

# Count a failed login; the lockout window starts at the first failure
# Keys: [failed_attempts_key]
# Args: [window_seconds]
# Returns: attempts within the window
FAILED_LOGIN_SCRIPT = """
local attempts = redis.call('INCR', KEYS[1])
if attempts == 1 then
    redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
end
return attempts
"""
