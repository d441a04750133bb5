"""
The discovery package reports network-advertised services as they come and go.

A ServiceDiscovery opens browsing sessions for a service type. Each session posts
ServiceUpEvent and ServiceDownEvent instances carrying a RawService with the name,
fully qualified name, addresses, host and port of the advertised service.
"""
