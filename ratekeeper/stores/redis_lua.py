"""Redis Lua scripts for the remote counter store.

Each script runs atomically on the Redis server, so increment and expiry
can never be separated by a crash or a concurrent caller.
"""

# Atomic increment with expire-on-create.
# INCR creates the key at 1 when absent; only that call sets the TTL.
# A counter found without a TTL (PTTL == -1) gets one re-applied so no
# counter can outlive its window.
# Returns {new_value, created}
INCR_WITH_EXPIRY_SCRIPT = """
    local key = KEYS[1]
    local ttl_ms = tonumber(ARGV[1])

    local value = redis.call('INCR', key)
    local created = 0
    if value == 1 then
        redis.call('PEXPIRE', key, ttl_ms)
        created = 1
    elseif redis.call('PTTL', key) == -1 then
        redis.call('PEXPIRE', key, ttl_ms)
    end

    return {value, created}
"""

# Compare-and-set on a versioned float state hash.
# Fields: v (version), a (value), b (timestamp). An absent key has version 0.
# The write happens only when the stored version equals ARGV[1].
# Returns 1 on success, 0 on version conflict
CAS_UPDATE_SCRIPT = """
    local key = KEYS[1]
    local expected = ARGV[1]
    local new_version = ARGV[2]
    local value = ARGV[3]
    local timestamp = ARGV[4]
    local ttl_ms = tonumber(ARGV[5])

    local current = redis.call('HGET', key, 'v')
    if not current then
        current = '0'
    end
    if current ~= expected then
        return 0
    end

    redis.call('HSET', key, 'v', new_version, 'a', value, 'b', timestamp)
    redis.call('PEXPIRE', key, ttl_ms)
    return 1
"""
