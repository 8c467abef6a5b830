"""Redis Lua scripts for atomic usage accounting."""

# Reserve one unit of usage if the ceiling allows it
# Keys: [usage_key]
# Args: [limit, ttl_seconds]
# Returns: [allowed (0/1), used]
USAGE_RESERVE_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local ttl = tonumber(ARGV[2])

local current = tonumber(redis.call('GET', key) or '0')
if current >= limit then
    return {0, current}
end

local used = redis.call('INCR', key)
if used == 1 then
    redis.call('EXPIRE', key, ttl)
end

return {1, used}
"""

# Give back one reserved unit; never goes below zero
# Keys: [usage_key]
# Returns: count after the release
USAGE_RELEASE_SCRIPT = """
local key = KEYS[1]

local current = tonumber(redis.call('GET', key) or '0')
if current <= 0 then
    return 0
end

return redis.call('DECR', key)
"""
