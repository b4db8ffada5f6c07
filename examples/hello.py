""" Register a service and call it through the same endpoint. The broker
    is selected by the MQTTRPC_TRANSPORT environment variable; with the
    default ("mqtt") an MQTT broker must be listening on MQTTRPC_MQTT_HOST
    and MQTTRPC_MQTT_PORT (localhost:1883 unless set otherwise).
"""

import logging
import mqttrpc


def hello(first, second):
    print('example/hello: request:', first, second)
    return '%s:%s' % (first, second)


def main():

    logging.basicConfig(level=logging.INFO)

    transport = mqttrpc.connect()
    endpoint = mqttrpc.Endpoint(transport)
    endpoint.on_error = lambda error: print('ERROR', error)

    endpoint.register('example/hello', hello)

    result = endpoint.call('example/hello', 'world', 42)
    print('example/hello response:', result)

    endpoint.close()
    transport.close()


if __name__ == '__main__':
    main()

# vim: set expandtab tabstop=8 softtabstop=4 shiftwidth=4 autoindent:
