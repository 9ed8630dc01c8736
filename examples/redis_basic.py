import os

import conduit.data.redis as KV

client = KV.connect_pool(host=os.getenv("REDIS_HOST", "localhost"))  # Normal port is 6379.

# The standard KV interface supports "get", "set", and "pop".

client.kv_pop("hello")

KV.kv_get(client, "hello")

KV.kv_set(client, "hello", "world")

client.kv_get("hello")

# Hashes can be cached with an expiry in one call.

client.hcacheall("session:42", {"user": "42", "theme": "dark"}, 300)
print(client.hgetall("session:42"), client.ttl("session:42"))

# All data clients from Conduit expose the underlying library for
# manual interaction.

r = client.raw_client
for key in client.get_keys("session:*"):
    print(key, r.type(key))
