import os

import conduit.data.influx as TS

client = TS.connect_http(host=os.getenv("INFLUX_HOST", "localhost"))  # Normal port is 8086.

client.create_db("example")
client.insert_batch("example", "cpu", "host", "web-1", {"load": 0.42})

for point in client.count_fields("example", "load", "cpu").get_points():
    print(point)

client.close()
