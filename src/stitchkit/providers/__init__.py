"""Built-in auth providers.

Each sub-package holds one login strategy. Providers are registered with an
:class:`~stitchkit.auth.manager.AuthManager` under short aliases by
:func:`~stitchkit.auth.manager.create_default_manager`:

===============  =====================  ==============================
Alias            Backend provider       Credentials
===============  =====================  ==============================
``anon``         ``anon-user``          none
``userpass``     ``local-userpass``     username/email and password
``apiKey``       ``api-key``            API key
``custom``       ``custom-token``       externally issued JWT
``google``       ``oauth2-google``      OAuth redirect fragment
``facebook``     ``oauth2-facebook``    OAuth redirect fragment
===============  =====================  ==============================
"""
