# Release: delete the lock and announce it, only if the caller still owns it.
# param: keys[1] - lock key
# param: keys[2] - release channel
# param: argv[1] - lock value of the caller
# returns: 1 if released, otherwise 0
RELEASE_SCRIPT = """
local lockKey = KEYS[1]
local releaseChannel = KEYS[2]
local lockValue = ARGV[1]

if redis.call("GET", lockKey) == lockValue then
    redis.call("DEL", lockKey)
    redis.call("PUBLISH", releaseChannel, cjson.encode({key = lockKey, value = lockValue}))
    return 1
end
return 0
"""

# Renew: set a fresh expiry, only if the caller still owns the lock.
# param: keys[1] - lock key
# param: argv[1] - lock value of the caller
# param: argv[2] - new expiry in milliseconds
# returns: 1 if renewed, otherwise 0
RENEW_SCRIPT = """
if redis.call("GET", KEYS[1]) == ARGV[1] then
    return redis.call("PEXPIRE", KEYS[1], ARGV[2])
end
return 0
"""
