from django.apps import AppConfig


class PresentationConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'opticalmarket.presentation'
    label = 'presentation' # Define um label para evitar conflitos de nomes

    def ready(self):
        # Container único por processo: guarda o carrinho e a trava de cada comprador.
        from opticalmarket.core.dependency_injection import ContainerDependencias
        self.container = ContainerDependencias()
