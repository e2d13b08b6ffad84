from laboratories.conf import lab_access_setting


def get_client_ip(request):
    """
    Address of the workstation that sent the request.

    X-Forwarded-For is only consulted when LAB_ACCESS['TRUST_X_FORWARDED_FOR']
    is set, i.e. when the app sits behind a reverse proxy that overwrites the
    header. The value is returned untouched, so an IPv6 or rewritten address
    is left for the authorization service to reject.
    """
    if lab_access_setting('TRUST_X_FORWARDED_FOR'):
        forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR', '')
        if forwarded_for:
            return forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '')
