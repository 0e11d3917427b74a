# -----------------------------------------------------------------------------
# Copyright (c) 2025 vSphere Perf Analyzer contributors
# Licensed under the MIT License. See LICENSE in project root for details.
# -----------------------------------------------------------------------------

import logging
import ssl
from typing import Optional

import requests
import urllib3
from pyVim.connect import Disconnect, SmartConnect
from pyVmomi import SoapStubAdapter, vim, vmodl
from requests.adapters import HTTPAdapter
from requests.auth import HTTPBasicAuth
from urllib3 import PoolManager
from urllib3.util.ssl_ import create_urllib3_context

from vpa.exceptions import ConnectionFailed

LOG = logging.getLogger(__name__)
urllib3.disable_warnings()

VSAN_API_PATH = '/vsanHealth'
VSAN_API_VERSION = 'vsan.version.version3'
REST_SESSION_PATH = '/rest/com/vmware/cis/session'
REST_SESSION_HEADER = 'vmware-api-session-id'


class SSLAdapter(HTTPAdapter):
    """An HTTPS Transport Adapter that uses an explicit SSL context."""
    def __init__(self, verify_flags=ssl.VERIFY_X509_STRICT, **kwargs):
        self.verify_flags = verify_flags
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        context = create_urllib3_context(verify_flags=self.verify_flags)
        self.poolmanager = PoolManager(num_pools=connections, maxsize=maxsize,
                                       block=block, ssl_context=context, **pool_kwargs)


def create_ssl_context(tls_validation: str = 'strict', tls_ca: Optional[str] = None) -> ssl.SSLContext:
    """
    Build the SSL context used for the SOAP connections.

    Args:
        tls_validation: 'strict', 'normal', or 'none'
        tls_ca: Optional CA bundle file
    """
    if tls_validation == 'none':
        LOG.warning("TLS validation is DISABLED. This is insecure and should only be used for testing.")
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    context = ssl.create_default_context(cafile=tls_ca)
    if tls_validation == 'strict':
        context.verify_flags |= ssl.VERIFY_X509_STRICT
    return context


def get_service_instance(host, username, password, port=443, tls_validation='strict', tls_ca=None):
    """
    Log in to vCenter over SOAP.

    Returns:
        vim.ServiceInstance

    Raises:
        ConnectionFailed: If the login or the TLS handshake fails
    """
    if not host:
        raise ConnectionFailed('vcenter', "No vCenter host provided")

    endpoint = f"{host}:{port}"
    LOG.info(f"Connecting to vCenter {endpoint}")
    try:
        si = SmartConnect(host=host, user=username, pwd=password, port=int(port),
                          sslContext=create_ssl_context(tls_validation, tls_ca))
    except vim.fault.InvalidLogin as e:
        raise ConnectionFailed(endpoint, f"login failed: {e.msg}") from e
    except (vmodl.MethodFault, ssl.SSLError, OSError) as e:
        raise ConnectionFailed(endpoint, str(e)) from e

    LOG.info(f"Connected to vCenter {endpoint}")
    return si


def _vsan_stub(si, host, port, tls_validation, tls_ca):
    # The vSAN management API lives on its own endpoint; reuse the vCenter
    # session cookie so no second login happens
    stub = SoapStubAdapter(host=host, port=int(port), path=VSAN_API_PATH, version=VSAN_API_VERSION,
                           sslContext=create_ssl_context(tls_validation, tls_ca))
    stub.cookie = si._stub.cookie
    return stub


def get_vsan_performance_manager(si, host, port=443, tls_validation='strict', tls_ca=None):
    """Return the vSAN performance manager bound to the vCenter session of `si`."""
    stub = _vsan_stub(si, host, port, tls_validation, tls_ca)
    return vim.cluster.VsanPerformanceManager('vsan-performance-manager', stub)


def get_vsan_space_report_system(si, host, port=443, tls_validation='strict', tls_ca=None):
    stub = _vsan_stub(si, host, port, tls_validation, tls_ca)
    return vim.cluster.VsanSpaceReportSystem('vsan-cluster-space-report-system', stub)


def get_rest_session(host, username, password, port=443, tls_validation='strict', tls_ca=None):
    """
    Open a vCenter REST API session.

    Returns:
        tuple: (session, base_url) with the session id header already set

    Raises:
        ConnectionFailed: If the session could not be created
    """
    session = requests.Session()
    if tls_validation == 'none':
        session.verify = False
    else:
        verify_flags = ssl.VERIFY_X509_STRICT if tls_validation == 'strict' else ssl.VERIFY_DEFAULT
        session.mount("https://", SSLAdapter(verify_flags=verify_flags))
        session.verify = tls_ca if tls_ca else True

    session.headers.update({
        "Accept": "application/json",
        "Content-Type": "application/json"
    })

    base_url = f"https://{host}:{port}"
    try:
        resp = session.post(f"{base_url}{REST_SESSION_PATH}",
                            auth=HTTPBasicAuth(username, password), timeout=10)
    except requests.exceptions.RequestException as e:
        raise ConnectionFailed(base_url, f"REST login failed: {e}") from e

    if resp.status_code != 200:
        raise ConnectionFailed(base_url, f"REST login returned HTTP {resp.status_code}")

    try:
        body = resp.json()
    except ValueError as e:
        raise ConnectionFailed(base_url, f"REST login did not return JSON: {e}") from e

    token = body.get('value') if isinstance(body, dict) else None
    if not token:
        raise ConnectionFailed(base_url, "REST login returned no session id")

    session.headers.update({REST_SESSION_HEADER: token})
    LOG.info(f"REST session established with {base_url}")
    return session, base_url


def close_rest_session(session, base_url) -> None:
    try:
        session.delete(f"{base_url}{REST_SESSION_PATH}", timeout=10)
    except requests.exceptions.RequestException as e:
        LOG.warning(f"REST logout from {base_url} failed: {e}")
    finally:
        session.close()


def disconnect(si) -> None:
    if si is None:
        return
    try:
        Disconnect(si)
    except (vmodl.MethodFault, OSError) as e:
        LOG.warning(f"vCenter logout failed: {e}")
